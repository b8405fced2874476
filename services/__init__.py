"""Business logic for the CRM core.

Services read and write through the query ports in services.ports and never
import the ORM; db.repositories supplies the SQL implementations.
"""
