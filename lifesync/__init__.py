"""
LifeSync - Personal Data Synchronization

Keeps a single user's personal data (tasks, finances, notes, ...) in a
local slot on the device and, once the user signs in, mirrors it to
their own Google Drive so other devices see the same data.

DESIGN PRINCIPLES:
1. Local first - the local write always happens and always decides success
2. Remote failures never block the user
3. No silent data loss - divergent copies are surfaced, not overwritten
4. Every sync step emits an event and a structured log line
5. Storage backends are swappable
"""

__version__ = "1.0.0"
__author__ = "LifeSync Team"
