"""
Hosting account models.

HostingProfile is 1:1 with a Credential and ResourceQuota is 1:1 with a
HostingProfile; both relations are enforced with unique foreign keys.
AccountSequence holds the atomic counter behind account numbers.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from ..constants import Limits, QuotaDefaults
from .db_base import JSON, TimestampMixin, UUIDMixin, utc_now
from .db_config import Base

UNLIMITED = Limits.UNLIMITED
NONE = Limits.NONE


class HostingProfile(Base, UUIDMixin, TimestampMixin):
    """Contact, billing and reseller data of a hosting account."""

    __tablename__ = "hosting_profile"

    credential_id = Column(
        String(36), ForeignKey("credential.id"), nullable=False, unique=True, index=True
    )

    # Company and contact
    company_name = Column(String(255), nullable=True)
    vat_id = Column(String(64), nullable=True)
    company_id = Column(String(64), nullable=True)
    gender = Column(String(16), nullable=True)
    contact_firstname = Column(String(255), nullable=True)
    contact_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    telephone = Column(String(64), nullable=True)
    mobile = Column(String(64), nullable=True)
    fax = Column(String(64), nullable=True)
    internet = Column(String(255), nullable=True)

    # Address
    street = Column(String(255), nullable=True)
    zip = Column(String(32), nullable=True)
    city = Column(String(128), nullable=True)
    state = Column(String(128), nullable=True)
    country = Column(String(64), nullable=True)

    # Billing
    bank_account_owner = Column(String(255), nullable=True)
    bank_account_number = Column(String(64), nullable=True)
    bank_code = Column(String(64), nullable=True)
    bank_name = Column(String(255), nullable=True)
    bank_account_iban = Column(String(64), nullable=True)
    bank_account_swift = Column(String(32), nullable=True)
    paypal_email = Column(String(255), nullable=True)

    # Identity on the panel and on the host
    account_number = Column(String(32), nullable=False, unique=True, index=True)
    os_login = Column(String(32), nullable=False, unique=True, index=True)

    # Preferences and state
    language = Column(String(16), nullable=False)
    theme = Column(String(64), nullable=False)
    locked = Column(Boolean, nullable=False, default=False)
    canceled = Column(Boolean, nullable=False, default=False)
    added_date = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    added_by = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)

    # Reseller and template relationships
    template_master = Column(Integer, nullable=False, default=0)
    template_additional = Column(JSON, nullable=True)
    parent_account_id = Column(String(36), ForeignKey("hosting_profile.id"), nullable=True)
    reseller = Column(Boolean, nullable=False, default=False)

    def __repr__(self):
        return (
            f"<HostingProfile(id={self.id}, account_number={self.account_number}, "
            f"os_login={self.os_login})>"
        )


class ResourceQuota(Base, UUIDMixin, TimestampMixin):
    """Limits attached to a hosting account. -1 means unlimited, 0 means none."""

    __tablename__ = "resource_quota"

    profile_id = Column(
        String(36), ForeignKey("hosting_profile.id"), nullable=False, unique=True, index=True
    )

    # Web
    web_servers = Column(JSON, nullable=True)
    limit_web_domain = Column(Integer, nullable=False, default=UNLIMITED)
    limit_web_quota = Column(Integer, nullable=False, default=UNLIMITED)
    limit_traffic_quota = Column(Integer, nullable=False, default=UNLIMITED)
    web_php_options = Column(JSON, nullable=True)
    limit_cgi = Column(Boolean, nullable=False, default=False)
    limit_ssi = Column(Boolean, nullable=False, default=False)
    limit_perl = Column(Boolean, nullable=False, default=False)
    limit_ruby = Column(Boolean, nullable=False, default=False)
    limit_python = Column(Boolean, nullable=False, default=False)
    force_suexec = Column(Boolean, nullable=False, default=False)
    limit_hterror = Column(Boolean, nullable=False, default=False)
    limit_wildcard = Column(Boolean, nullable=False, default=False)
    limit_ssl = Column(Boolean, nullable=False, default=False)
    limit_ssl_letsencrypt = Column(Boolean, nullable=False, default=False)
    limit_web_aliasdomain = Column(Integer, nullable=False, default=UNLIMITED)
    limit_web_subdomain = Column(Integer, nullable=False, default=UNLIMITED)
    limit_ftp_user = Column(Integer, nullable=False, default=UNLIMITED)
    limit_shell_user = Column(Integer, nullable=False, default=NONE)
    ssh_chroot = Column(JSON, nullable=True)
    limit_webdav_user = Column(Integer, nullable=False, default=NONE)
    limit_backup = Column(Boolean, nullable=False, default=False)
    limit_directive_snippets = Column(Boolean, nullable=False, default=False)

    # Mail
    mail_servers = Column(JSON, nullable=True)
    limit_maildomain = Column(Integer, nullable=False, default=UNLIMITED)
    limit_mailbox = Column(Integer, nullable=False, default=UNLIMITED)
    limit_mailalias = Column(Integer, nullable=False, default=UNLIMITED)
    limit_mailaliasdomain = Column(Integer, nullable=False, default=UNLIMITED)
    limit_mailmailinglist = Column(Integer, nullable=False, default=UNLIMITED)
    limit_mailforward = Column(Integer, nullable=False, default=UNLIMITED)
    limit_mailcatchall = Column(Integer, nullable=False, default=UNLIMITED)
    limit_mailrouting = Column(Integer, nullable=False, default=NONE)
    limit_mail_wblist = Column(Integer, nullable=False, default=NONE)
    limit_mailfilter = Column(Integer, nullable=False, default=UNLIMITED)
    limit_fetchmail = Column(Integer, nullable=False, default=UNLIMITED)
    limit_mailquota = Column(Integer, nullable=False, default=UNLIMITED)
    limit_spamfilter_wblist = Column(Integer, nullable=False, default=NONE)
    limit_spamfilter_user = Column(Integer, nullable=False, default=NONE)
    limit_spamfilter_policy = Column(Integer, nullable=False, default=NONE)
    limit_mail_backup = Column(Boolean, nullable=False, default=False)

    # XMPP
    xmpp_servers = Column(JSON, nullable=True)
    limit_xmpp_domain = Column(Integer, nullable=False, default=UNLIMITED)
    limit_xmpp_user = Column(Integer, nullable=False, default=UNLIMITED)
    limit_xmpp_muc = Column(Boolean, nullable=False, default=False)
    limit_xmpp_pastebin = Column(Boolean, nullable=False, default=False)
    limit_xmpp_httparchive = Column(Boolean, nullable=False, default=False)
    limit_xmpp_anon = Column(Boolean, nullable=False, default=False)
    limit_xmpp_vjud = Column(Boolean, nullable=False, default=False)
    limit_xmpp_proxy = Column(Boolean, nullable=False, default=False)
    limit_xmpp_status = Column(Boolean, nullable=False, default=False)

    # Databases
    db_servers = Column(JSON, nullable=True)
    limit_database = Column(Integer, nullable=False, default=UNLIMITED)
    limit_database_user = Column(Integer, nullable=False, default=UNLIMITED)
    limit_database_quota = Column(Integer, nullable=False, default=UNLIMITED)

    # Cron
    limit_cron = Column(Integer, nullable=False, default=NONE)
    limit_cron_type = Column(String(16), nullable=False, default=QuotaDefaults.CRON_TYPE.value)
    limit_cron_frequency = Column(Integer, nullable=False, default=QuotaDefaults.CRON_FREQUENCY)

    # DNS
    dns_servers = Column(JSON, nullable=True)
    limit_dns_zone = Column(Integer, nullable=False, default=UNLIMITED)
    default_slave_dnsserver = Column(Integer, nullable=False, default=NONE)
    limit_dns_slave_zone = Column(Integer, nullable=False, default=UNLIMITED)
    limit_dns_record = Column(Integer, nullable=False, default=UNLIMITED)

    # Virtualization
    limit_openvz_vm = Column(Integer, nullable=False, default=NONE)
    limit_openvz_vm_template_id = Column(Integer, nullable=False, default=NONE)

    def __repr__(self):
        return f"<ResourceQuota(id={self.id}, profile_id={self.profile_id})>"


class AccountSequence(Base):
    """Named monotonic counter; incremented with a single UPDATE statement."""

    __tablename__ = "account_sequence"

    name = Column(String(64), primary_key=True)
    value = Column(Integer, nullable=False, default=0)
