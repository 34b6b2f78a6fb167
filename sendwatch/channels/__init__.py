"""
channels — Alert delivery backends.

Each channel exposes:
    async post(payload) → DeliveryAttempt

and raises NotificationError when the post fails.
"""
