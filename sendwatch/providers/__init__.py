"""providers — External email-service-provider clients."""
