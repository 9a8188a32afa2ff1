"""Slack messaging, history reading and archive filters."""