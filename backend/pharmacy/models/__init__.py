from pharmacy.models.user import User
from pharmacy.models.customer import Customer
from pharmacy.models.medicine import Medicine
from pharmacy.models.sale import Sale, SaleItem
from pharmacy.models.purchase import Purchase

__all__ = ["User", "Customer", "Medicine", "Sale", "SaleItem", "Purchase"]
