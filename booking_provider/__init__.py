"""Mock booking provider: quotes, signed quote tokens and order confirmation."""
