"""
Chatbot Flow Builder.

Core model and service for a visual chatbot flow editor.
This package provides:

1. Graph Store:
   - Message nodes and directed links
   - Single outgoing link per source handle ("last connection wins")
   - Cascading node deletion
   - Immutable snapshots with change notification

2. Flow Validation:
   - Save eligibility via the single entry point rule

3. Save Workflow:
   - Busy-gated asynchronous save
   - Pluggable flow storage (memory, JSON files)

API:
   - POST /flows - Create new canvas
   - GET /flows/{id} - Get current snapshot
   - POST /flows/{id}/nodes - Add node
   - POST /flows/{id}/links - Connect nodes
   - POST /flows/{id}/validate - Validate flow
   - POST /flows/{id}/save - Validate and persist flow
   - GET /nodes - List available node kinds
"""

__version__ = "1.0.0"
