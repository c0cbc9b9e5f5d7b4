"""
connectors — window backends and the OAuth flow step.

Provides the pieces the completion controller talks to:
  • WindowSpawner / WindowHandle capability (base.py)
  • Playwright browser-window backend
  • External browser + loopback listener backend
  • Backend registry
  • OAuth flow-step renderer

Each backend is a subclass of WindowSpawner.
"""
