"""Batch jobs run by the worker and the automation endpoint"""
