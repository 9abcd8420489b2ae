"""Meal reminder service (HTTP trigger, Celery beat worker, scan/dispatch engine).

Runs as a separate service container. A scan tick matches every user's
enabled meal schedules against their local wall clock, pushes the due
reminders through FCM and clears delivery tokens FCM reports as dead.
"""
