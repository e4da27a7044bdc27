"""Splickets flight booking API"""
