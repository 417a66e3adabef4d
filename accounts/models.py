from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Staff account. The role decides which trading operations a user may run."""

    class Roles(models.TextChoices):
        ADMIN = "admin", "Admin"
        CASHIER = "cashier", "Cashier"
        AGENT = "agent", "Sales agent"
        WAREHOUSE = "warehouse", "Warehouse"
        ACCOUNTANT = "accountant", "Accountant"

    role = models.CharField(
        max_length=20,
        choices=Roles.choices,
        default=Roles.CASHIER,
        help_text="Application role controlling access level",
    )
    phone = models.CharField(max_length=24, blank=True)

    def __str__(self):
        return f"{self.username} ({self.role})"

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"
        indexes = [models.Index(fields=["role"], name="user_role_idx")]
