"""Shared helpers for validation and time handling"""
