# This file is part of coreos-metadata. See LICENSE for license information.

# Optional yaml formatted file merged over CFG_BUILTIN
DEFAULT_CONFIG = "/etc/coreos-metadata/config.yaml"

# Kernel command line and the key naming the platform on it
CMDLINE_PATH = "/proc/cmdline"
CMDLINE_OEM_FLAG = "coreos.oem.id"

# Directory holding systemd-networkd DHCP leases
NETWORKD_LEASES_DIR = "/run/systemd/netif/leases"

# What u get if no config is provided
CFG_BUILTIN = {
    "retries": {
        "attempts": 10,
        "sec_between": 1,
        "max_sec_between": 5,
    },
    # per attempt (connect, read) timeout in seconds
    "timeout": 10,
    "providers": {
        "azure": {
            "wireserver_endpoint": None,
            "leases_dir": NETWORKD_LEASES_DIR,
        },
        "cloudstack-metadata": {
            "metadata_url": None,
            "leases_dir": NETWORKD_LEASES_DIR,
        },
        "cloudstack-configdrive": {
            "label": "config-2",
        },
        "digitalocean": {
            "metadata_url": "http://169.254.169.254/metadata/v1.json",
        },
        "ec2": {
            "metadata_url": "http://169.254.169.254/2009-04-04/meta-data/",
        },
        "gce": {
            "metadata_url": (
                "http://metadata.google.internal/computeMetadata/v1/"
            ),
        },
        "openstack-metadata": {
            "metadata_url": "http://169.254.169.254/latest/meta-data/",
        },
        "packet": {
            "metadata_url": "https://metadata.packet.net/metadata",
        },
        "vagrant-virtualbox": {
            "interface": "eth1",
        },
    },
}
