# API Module - Local REST interface
#
# FastAPI routers for vault lifecycle, secrets, projects, attachments and
# trash. See main.py for the application object.
