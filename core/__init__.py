"""
Core game logic

This package holds the rules engine and everything that mutates a room:
- State machine: turn rotation, round boundaries, discard gating, game end
- Action applier: one rule branch per action kind
- Managers: room creation, joining and reads
- Concurrency: optimistic compare-and-swap around each action
"""
