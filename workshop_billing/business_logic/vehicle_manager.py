# workshop_billing/business_logic/vehicle_manager.py

import sqlite3
from typing import Optional, List, TYPE_CHECKING
import logging

from workshop_billing.exceptions import NotFoundError
from .entities.vehicle_entity import VehicleEntity
from .validation import optional_text, to_positive_int

if TYPE_CHECKING:
    from ..data_access.vehicles_repository import VehiclesRepository

logger = logging.getLogger(__name__)


class VehicleManager:
    def __init__(self, vehicles_repository: 'VehiclesRepository'):
        """
        Initializes the VehicleManager with a VehiclesRepository.
        :param vehicles_repository: An instance of VehiclesRepository.
        """
        if vehicles_repository is None:
            raise ValueError("vehicles_repository cannot be None")
        self.vehicles_repository = vehicles_repository

    def add_vehicle(self, organization_id: str, customer_name: Optional[str] = None, make: Optional[str] = None,
                    model: Optional[str] = None, year: Optional[int] = None) -> VehicleEntity:
        vehicle = VehicleEntity(
            organization_id=organization_id,
            customer_name=optional_text(customer_name, "customer_name"),
            make=optional_text(make, "make"),
            model=optional_text(model, "model"),
            year=to_positive_int(year, "year") if year is not None else None,
        )
        created = self.vehicles_repository.add(vehicle)
        logger.info(f"Vehicle '{created.display_name}' (ID: {created.id}) added for organization {organization_id}.")
        return created

    def get_vehicle_for_organization(self, vehicle_id: int, organization_id: str,
                                     conn: Optional[sqlite3.Connection] = None) -> VehicleEntity:
        """The vehicle, if it exists and belongs to the organization; NotFoundError otherwise."""
        vehicle = self.vehicles_repository.get_for_organization(vehicle_id, organization_id, conn=conn)
        if vehicle is None:
            logger.warning(f"Vehicle {vehicle_id} not found for organization {organization_id}.")
            raise NotFoundError(f"Vehicle {vehicle_id} not found.")
        return vehicle

    def list_vehicles(self, organization_id: str) -> List[VehicleEntity]:
        logger.debug(f"Fetching vehicles of organization {organization_id}.")
        return self.vehicles_repository.get_by_organization(organization_id)
