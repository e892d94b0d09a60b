"""
Scheduling subsystem.

Components:
- challenge_scheduler.py: idle -> countdown -> active state machine for the next scheduled challenge
- alarm_monitor.py: polls scheduled challenges and rings one alarm at a time (start / snooze / cancel)
"""
