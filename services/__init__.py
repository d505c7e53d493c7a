"""
Service layer

Pure computation, no state transitions:
- Catalog: static card definitions
- Deck: seeded shuffles and draws
- Scoring: final scores and winners
- Round phase: round layout, macro-event modifiers, hand limit
- Naming: room codes and seat credentials
- History: action log and public projection
"""
