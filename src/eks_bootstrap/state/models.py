"""Typed views over the key=value state files."""

from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class NetworkOutputs(BaseModel):
    """Identifiers produced by the network step."""

    vpc_id: str
    igw_id: Optional[str] = None
    subnet_ids: List[str] = Field(default_factory=list)
    route_table_id: Optional[str] = None
    security_group_id: Optional[str] = None

    def to_env(self) -> Dict[str, str]:
        values = {"VPC_ID": self.vpc_id}
        if self.igw_id:
            values["IGW_ID"] = self.igw_id
        for index, subnet_id in enumerate(self.subnet_ids, 1):
            values[f"SUBNET{index}_ID"] = subnet_id
        if self.route_table_id:
            values["ROUTE_TABLE_ID"] = self.route_table_id
        if self.security_group_id:
            values["SG_ID"] = self.security_group_id
        return values

    @classmethod
    def from_env(cls, values: Dict[str, str]) -> "NetworkOutputs":
        subnet_ids = []
        index = 1
        while f"SUBNET{index}_ID" in values:
            subnet_ids.append(values[f"SUBNET{index}_ID"])
            index += 1
        return cls(
            vpc_id=values["VPC_ID"],
            igw_id=values.get("IGW_ID"),
            subnet_ids=subnet_ids,
            route_table_id=values.get("ROUTE_TABLE_ID"),
            security_group_id=values.get("SG_ID"),
        )


class AccessKeyCredentials(BaseModel):
    """Access key pair of the CI/CD user."""

    access_key_id: str
    secret_access_key: str

    def to_env(self) -> Dict[str, str]:
        return {
            "GITHUB_ACCESS_KEY": self.access_key_id,
            "GITHUB_SECRET_KEY": self.secret_access_key,
        }

    @classmethod
    def from_env(cls, values: Dict[str, str]) -> "AccessKeyCredentials":
        return cls(
            access_key_id=values["GITHUB_ACCESS_KEY"],
            secret_access_key=values["GITHUB_SECRET_KEY"],
        )


class DatabaseCredentials(BaseModel):
    """Connection details of a managed database."""

    prefix: str
    identifier: str
    db_name: str
    username: str
    password: str
    port: int
    endpoint: Optional[str] = None

    def to_env(self) -> Dict[str, str]:
        values = {
            f"{self.prefix}_IDENTIFIER": self.identifier,
            f"{self.prefix}_NAME": self.db_name,
            f"{self.prefix}_USERNAME": self.username,
            f"{self.prefix}_PASSWORD": self.password,
            f"{self.prefix}_PORT": str(self.port),
        }
        if self.endpoint:
            values[f"{self.prefix}_ENDPOINT"] = self.endpoint
        return values

    @classmethod
    def from_env(cls, prefix: str, values: Dict[str, str]) -> Optional["DatabaseCredentials"]:
        if f"{prefix}_PASSWORD" not in values:
            return None
        return cls(
            prefix=prefix,
            identifier=values.get(f"{prefix}_IDENTIFIER", ""),
            db_name=values.get(f"{prefix}_NAME", ""),
            username=values.get(f"{prefix}_USERNAME", ""),
            password=values[f"{prefix}_PASSWORD"],
            port=int(values.get(f"{prefix}_PORT", "0")),
            endpoint=values.get(f"{prefix}_ENDPOINT"),
        )


class CacheCredentials(BaseModel):
    """Connection details of the cache cluster."""

    prefix: str
    cluster_id: str
    port: int
    endpoint: Optional[str] = None

    def to_env(self) -> Dict[str, str]:
        values = {
            f"{self.prefix}_CLUSTER_ID": self.cluster_id,
            f"{self.prefix}_PORT": str(self.port),
        }
        if self.endpoint:
            values[f"{self.prefix}_ENDPOINT"] = self.endpoint
        return values


class Endpoint(BaseModel):
    """Discovered network endpoint of a database or cache."""

    prefix: str
    address: str
    port: int

    def to_env(self) -> Dict[str, str]:
        return {
            f"{self.prefix}_ENDPOINT": self.address,
            f"{self.prefix}_PORT": str(self.port),
        }
