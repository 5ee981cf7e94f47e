"""Payment gateway integration (Stripe)."""
