"""Domain layer for rentledger application.

Services live in their own modules (``rentledger.domain.matcher`` etc.);
this package only groups them so the database layer can import entities
without pulling the services in.
"""
