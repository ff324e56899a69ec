"""Pulumi Cloud REST API provider"""
