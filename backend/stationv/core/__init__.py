# stationv/core/__init__.py
"""
Core relay modules.
Contains the in-memory relay authority:
- errors: relay error taxonomy
- pubsub: per-connection outbound mailboxes and fan-out
- registry: live connections and nickname bindings
- directory: channels, membership and bounded history
- identity: nickname claim / rename / quit
- router: inbound frame dispatch and the global ``hub``
"""
