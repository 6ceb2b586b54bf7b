"""
Property Management Models - Tenants & Leases
Read-only collaborators for the PDC lifecycle: cheques are registered
against a tenant and optionally linked to a lease.
"""
from django.db import models
from apps.core.models import BaseModel
from apps.core.utils import generate_number


class Tenant(BaseModel):
    """
    Tenant for property rental.
    """
    tenant_number = models.CharField(max_length=50, unique=True, editable=False)
    name = models.CharField(max_length=200)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    company = models.CharField(max_length=200, blank=True)

    # Emirates ID / Trade License
    emirates_id = models.CharField(max_length=20, blank=True)
    trade_license = models.CharField(max_length=50, blank=True)

    # Status
    status = models.CharField(max_length=20, choices=[
        ('active', 'Active'),
        ('inactive', 'Inactive'),
        ('blacklisted', 'Blacklisted'),
    ], default='active')

    notes = models.TextField(blank=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return f"{self.tenant_number} - {self.name}"

    def save(self, *args, **kwargs):
        if not self.tenant_number:
            self.tenant_number = generate_number('TENANT', Tenant, 'tenant_number')
        super().save(*args, **kwargs)


class Lease(BaseModel):
    """
    Lease/Tenancy contract.
    """
    lease_number = models.CharField(max_length=50, unique=True, editable=False)
    tenant = models.ForeignKey(Tenant, on_delete=models.PROTECT, related_name='leases')
    unit_reference = models.CharField(max_length=100, blank=True, help_text='Unit / property label')

    # Lease period
    start_date = models.DateField()
    end_date = models.DateField()

    # Rent details
    annual_rent = models.DecimalField(max_digits=12, decimal_places=2)
    payment_frequency = models.CharField(max_length=20, choices=[
        ('monthly', 'Monthly'),
        ('quarterly', 'Quarterly'),
        ('semi_annual', 'Semi-Annual'),
        ('annual', 'Annual'),
    ], default='monthly')
    number_of_cheques = models.PositiveIntegerField(default=12)

    # Status
    status = models.CharField(max_length=20, choices=[
        ('draft', 'Draft'),
        ('active', 'Active'),
        ('expired', 'Expired'),
        ('terminated', 'Terminated'),
        ('renewed', 'Renewed'),
    ], default='draft')

    class Meta:
        ordering = ['-start_date']

    def __str__(self):
        return f"{self.lease_number} - {self.tenant.name}"

    def save(self, *args, **kwargs):
        if not self.lease_number:
            self.lease_number = generate_number('LEASE', Lease, 'lease_number')
        super().save(*args, **kwargs)
