"""HR Record Store package.

Organized by feature modules (departments, employees, attendance, leaves,
payroll, biometrics, settings, audit), each with a domain model, a repository
protocol, a SQLAlchemy-backed repository and a service that validates writes.
"""
