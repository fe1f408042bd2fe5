"""
Pydantic schemas for resource quotas.

Integer limits use -1 for "unlimited" and 0 for "none"; server pools are
small ordered lists of pool names.
"""

from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..constants import CronType, Limits, QuotaDefaults
from .mixins import IdMixin, TimestampMixin, reject_explicit_nulls

Count = Annotated[int, Field(ge=Limits.UNLIMITED)]
ServerPool = List[str]

UNLIMITED = Limits.UNLIMITED
NONE = Limits.NONE

SERVER_POOL_FIELDS = frozenset(
    {
        "web_servers",
        "web_php_options",
        "ssh_chroot",
        "mail_servers",
        "xmpp_servers",
        "db_servers",
        "dns_servers",
    }
)


class ResourceQuotaFields(BaseModel):
    """Complete quota with every limit at its default."""

    # Web
    web_servers: ServerPool = Field(default_factory=list)
    limit_web_domain: Count = UNLIMITED
    limit_web_quota: Count = UNLIMITED
    limit_traffic_quota: Count = UNLIMITED
    web_php_options: ServerPool = Field(default_factory=list)
    limit_cgi: bool = False
    limit_ssi: bool = False
    limit_perl: bool = False
    limit_ruby: bool = False
    limit_python: bool = False
    force_suexec: bool = False
    limit_hterror: bool = False
    limit_wildcard: bool = False
    limit_ssl: bool = False
    limit_ssl_letsencrypt: bool = False
    limit_web_aliasdomain: Count = UNLIMITED
    limit_web_subdomain: Count = UNLIMITED
    limit_ftp_user: Count = UNLIMITED
    limit_shell_user: Count = NONE
    ssh_chroot: ServerPool = Field(default_factory=list)
    limit_webdav_user: Count = NONE
    limit_backup: bool = False
    limit_directive_snippets: bool = False

    # Mail
    mail_servers: ServerPool = Field(default_factory=list)
    limit_maildomain: Count = UNLIMITED
    limit_mailbox: Count = UNLIMITED
    limit_mailalias: Count = UNLIMITED
    limit_mailaliasdomain: Count = UNLIMITED
    limit_mailmailinglist: Count = UNLIMITED
    limit_mailforward: Count = UNLIMITED
    limit_mailcatchall: Count = UNLIMITED
    limit_mailrouting: Count = NONE
    limit_mail_wblist: Count = NONE
    limit_mailfilter: Count = UNLIMITED
    limit_fetchmail: Count = UNLIMITED
    limit_mailquota: Count = UNLIMITED
    limit_spamfilter_wblist: Count = NONE
    limit_spamfilter_user: Count = NONE
    limit_spamfilter_policy: Count = NONE
    limit_mail_backup: bool = False

    # XMPP
    xmpp_servers: ServerPool = Field(default_factory=list)
    limit_xmpp_domain: Count = UNLIMITED
    limit_xmpp_user: Count = UNLIMITED
    limit_xmpp_muc: bool = False
    limit_xmpp_pastebin: bool = False
    limit_xmpp_httparchive: bool = False
    limit_xmpp_anon: bool = False
    limit_xmpp_vjud: bool = False
    limit_xmpp_proxy: bool = False
    limit_xmpp_status: bool = False

    # Databases
    db_servers: ServerPool = Field(default_factory=list)
    limit_database: Count = UNLIMITED
    limit_database_user: Count = UNLIMITED
    limit_database_quota: Count = UNLIMITED

    # Cron
    limit_cron: Count = NONE
    limit_cron_type: CronType = QuotaDefaults.CRON_TYPE
    limit_cron_frequency: int = Field(default=QuotaDefaults.CRON_FREQUENCY, ge=1)

    # DNS
    dns_servers: ServerPool = Field(default_factory=list)
    limit_dns_zone: Count = UNLIMITED
    default_slave_dnsserver: int = Field(default=NONE, ge=0)
    limit_dns_slave_zone: Count = UNLIMITED
    limit_dns_record: Count = UNLIMITED

    # Virtualization
    limit_openvz_vm: Count = NONE
    limit_openvz_vm_template_id: int = Field(default=NONE, ge=0)

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    @field_validator(*SERVER_POOL_FIELDS, mode="before")
    def null_pool_is_empty(cls, v):
        """Rows written before a pool column existed read back as NULL."""
        return [] if v is None else v


class ResourceQuotaUpdate(BaseModel):
    """
    Sparse quota update; only the fields present in the payload are applied.
    """

    # Web
    web_servers: Optional[ServerPool] = None
    limit_web_domain: Optional[Count] = None
    limit_web_quota: Optional[Count] = None
    limit_traffic_quota: Optional[Count] = None
    web_php_options: Optional[ServerPool] = None
    limit_cgi: Optional[bool] = None
    limit_ssi: Optional[bool] = None
    limit_perl: Optional[bool] = None
    limit_ruby: Optional[bool] = None
    limit_python: Optional[bool] = None
    force_suexec: Optional[bool] = None
    limit_hterror: Optional[bool] = None
    limit_wildcard: Optional[bool] = None
    limit_ssl: Optional[bool] = None
    limit_ssl_letsencrypt: Optional[bool] = None
    limit_web_aliasdomain: Optional[Count] = None
    limit_web_subdomain: Optional[Count] = None
    limit_ftp_user: Optional[Count] = None
    limit_shell_user: Optional[Count] = None
    ssh_chroot: Optional[ServerPool] = None
    limit_webdav_user: Optional[Count] = None
    limit_backup: Optional[bool] = None
    limit_directive_snippets: Optional[bool] = None

    # Mail
    mail_servers: Optional[ServerPool] = None
    limit_maildomain: Optional[Count] = None
    limit_mailbox: Optional[Count] = None
    limit_mailalias: Optional[Count] = None
    limit_mailaliasdomain: Optional[Count] = None
    limit_mailmailinglist: Optional[Count] = None
    limit_mailforward: Optional[Count] = None
    limit_mailcatchall: Optional[Count] = None
    limit_mailrouting: Optional[Count] = None
    limit_mail_wblist: Optional[Count] = None
    limit_mailfilter: Optional[Count] = None
    limit_fetchmail: Optional[Count] = None
    limit_mailquota: Optional[Count] = None
    limit_spamfilter_wblist: Optional[Count] = None
    limit_spamfilter_user: Optional[Count] = None
    limit_spamfilter_policy: Optional[Count] = None
    limit_mail_backup: Optional[bool] = None

    # XMPP
    xmpp_servers: Optional[ServerPool] = None
    limit_xmpp_domain: Optional[Count] = None
    limit_xmpp_user: Optional[Count] = None
    limit_xmpp_muc: Optional[bool] = None
    limit_xmpp_pastebin: Optional[bool] = None
    limit_xmpp_httparchive: Optional[bool] = None
    limit_xmpp_anon: Optional[bool] = None
    limit_xmpp_vjud: Optional[bool] = None
    limit_xmpp_proxy: Optional[bool] = None
    limit_xmpp_status: Optional[bool] = None

    # Databases
    db_servers: Optional[ServerPool] = None
    limit_database: Optional[Count] = None
    limit_database_user: Optional[Count] = None
    limit_database_quota: Optional[Count] = None

    # Cron
    limit_cron: Optional[Count] = None
    limit_cron_type: Optional[CronType] = None
    limit_cron_frequency: Optional[int] = Field(default=None, ge=1)

    # DNS
    dns_servers: Optional[ServerPool] = None
    limit_dns_zone: Optional[Count] = None
    default_slave_dnsserver: Optional[int] = Field(default=None, ge=0)
    limit_dns_slave_zone: Optional[Count] = None
    limit_dns_record: Optional[Count] = None

    # Virtualization
    limit_openvz_vm: Optional[Count] = None
    limit_openvz_vm_template_id: Optional[int] = Field(default=None, ge=0)

    model_config = ConfigDict(extra="forbid", use_enum_values=True)

    @model_validator(mode="before")
    @classmethod
    def reject_nulls(cls, data):
        return reject_explicit_nulls(data, SERVER_POOL_FIELDS)

    @field_validator(*SERVER_POOL_FIELDS, mode="before")
    def null_pool_is_empty(cls, v):
        return [] if v is None else v

    def changes(self) -> dict:
        """Fields explicitly present in the payload."""
        return self.model_dump(exclude_unset=True)


class ResourceQuotaRead(IdMixin, TimestampMixin, ResourceQuotaFields):
    """Schema for reading a resource quota."""

    profile_id: str
