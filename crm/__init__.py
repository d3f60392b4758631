"""CRM backend with department-scoped data access."""
