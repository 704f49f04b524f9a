"""Business logic services used by handlers.

Handlers build services lazily so a cold start only connects to the tables
the invoked route needs.
"""

# Do NOT import services here - handlers import the module they need.
