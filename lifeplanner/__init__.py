"""Recurring-task occurrence engine for the lifeplanner service."""
