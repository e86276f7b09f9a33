"""
Selection workflow.

Responsibilities:
- Filter the candidate catalog by free text and city.
- Maintain the voter's capped selection set and persist it after every change.
- Gate the move to the rating screen on a complete selection.
"""
