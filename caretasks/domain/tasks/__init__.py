"""Care task domain: persistence, schemas and the service exposed to the application"""
