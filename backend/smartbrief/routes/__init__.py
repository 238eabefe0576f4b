# Routes package init
"""
SmartBrief Backend — API Routes Package
=========================================

Route Inventory:
    - summaries.py: /api/summaries  create, upload, regenerate, delete, list,
                    fetch, /ai/models, /file/types
    - users.py:     /api/users/{id} credits, deduct-credit, credit
    - health.py:    /health

Routes stay thin: parse the request, call the RequestOrchestrator, shape the
response. Errors are rendered by the handlers registered in main.py.
"""
