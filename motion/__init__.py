"""
Motion Control Module

Simulated two-axis carriage controller:
- Fixed-rate position integration toward a commanded goal
- Non-blocking homing sequence
- End effector tap pulse
- One-shot goal-reached detection
- Simulated hardware link
"""
