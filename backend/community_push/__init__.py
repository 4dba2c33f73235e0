"""Community push notifications: delivery engine, topic manager, reminder scheduler."""
