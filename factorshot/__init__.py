"""
Factorshot — Backend for a timed multiplication shooting game
==============================================================
Players sign in with Google, start a 5-minute round, shoot at
multiplication-fact targets and get scored when the round ends.  Admins
browse players and their history, import class rosters and export CSVs.

Package layout::

    factorshot/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Session / shot bounds
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # users, user_logins, game_sessions, shots
    ├── engine/
    │   ├── lifecycle.py   # Session state machine + domain errors
    │   └── stats.py       # Accuracy and score aggregates
    ├── services/
    │   ├── account_service.py  # Identity → user resolution, login journal
    │   ├── session_service.py  # Create / finish / read sessions
    │   ├── shot_service.py     # Shot ledger + shot statistics
    │   ├── report_service.py   # Admin read models
    │   ├── roster_service.py   # CSV roster import
    │   └── export_service.py   # CSV exports
    └── api/
        ├── main.py        # FastAPI app
        ├── auth.py        # Google ID token → JWT
        ├── identity.py    # Google token verification
        └── routes/        # Player + admin REST endpoints
"""

__version__ = "0.1.0"
