"""Domain packages: scheduling, sessions, online status and reminders"""
