"""Checkout orchestration and quiz metadata handling."""
