"""Accounts app exposes the custom User with role-based access.

RolePermission can be reused by other apps importing as:
	from accounts.permissions import RolePermission
"""
