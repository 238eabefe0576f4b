"""
SmartBrief Backend — Application Package Initializer
====================================================

What: Marks the `smartbrief` directory as a Python package.
Why:  Enables module imports like `from smartbrief.config import settings`.
Who:  Used implicitly by Python's import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    The backend is the credit-gated summarization pipeline, in layers:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │      RequestOrchestrator (use case) │  ← sequencing, credit discipline
    ├─────────────────────────────────────┤
    │  AuthGate · CreditLedger · Ingestor │
    │  AiProviderGateway · SummaryStore   │  ← one concern each
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Components are built once by the application factory and handed to routes
    through FastAPI dependencies, so tests can swap any of them.
"""

__version__ = "1.0.0"
