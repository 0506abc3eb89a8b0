"""Tenant Screening Engine - Services"""
