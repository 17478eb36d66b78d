"""Service layer for business logic.

Services encapsulate all business logic, keeping routes thin and focused
on HTTP handling. This separation provides:
- Clear business rules in one place
- Orchestration of multiple repositories
- Reusable business logic across multiple endpoints

Layer hierarchy:
    Routes (HTTP) -> Services (Business Logic) -> Repositories (Database)
                              |
                              v
                 Rendering (pure design-to-render pipeline)

Services should:
- Contain all business rules and validation
- Orchestrate calls to repositories
- Raise domain exceptions that routes translate to status codes

Services should NOT:
- Directly execute SQL queries (use repositories)
- Know about HTTP request/response details
- Commit transactions (the request-scoped session does)
"""
