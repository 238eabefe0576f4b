# Services package init
"""
SmartBrief Backend — Services Layer
=====================================

What:  Business logic between routes (HTTP) and the database (persistence).
How:   Services accept an AsyncSession plus domain values, apply the rules,
       and return domain objects. The application factory builds one instance
       of each and routes reach them through FastAPI dependencies.

Service Inventory:
    - AuthGate:            bearer token → Principal (user id + role)
    - CreditLedger:        atomic check / deduct / add / set of credits
    - FileIngestor:        .txt/.docx validation and text extraction
    - AiProviderGateway:   summarization across providers (Gemini, OpenAI)
    - SummaryStore:        Summary persistence and access policy
    - RequestOrchestrator: sequences the above for each use case
"""
