"""
Partela: shared-table bill splitting.

Structure:
- models/: In-memory Table, Guest, MenuItem, PaymentInfo
- data/: Demo menu templates and payment reference data
- services/: Money arithmetic, demo data, timers and the domain services
- schemas.py: Client-facing DTOs and inbound payload models
"""
