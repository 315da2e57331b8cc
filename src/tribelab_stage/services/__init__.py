"""Service layer for TribeLab business logic."""
