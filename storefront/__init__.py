"""Storefront backend: Stripe checkout, payment webhooks, scheduled post generation."""
