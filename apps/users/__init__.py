"""Users app package.

Custom user model with the client, host and agent roles. Use
``apps.users.models.CustomUser`` as the AUTH_USER_MODEL throughout the
project.
"""
