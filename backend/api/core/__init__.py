"""Core application wiring: configuration, logging, errors, dependencies"""
