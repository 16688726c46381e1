# This file is part of coreos-metadata. See LICENSE for license information.
"""Azure wireserver protocol: versions, GoalState, SharedConfig and the
certificate exchange used to recover the deployment's ssh keys."""

import contextlib
import logging
import os
import re
from typing import List, Optional
from xml.etree import ElementTree

from coreosmetadata import subp, temp_utils, util
from coreosmetadata.exceptions import InvalidMetadata

LOG = logging.getLogger(__name__)

DEFAULT_WIRESERVER_ENDPOINT = "168.63.129.16"
PROTOCOL_VERSION = "2012-11-30"


@contextlib.contextmanager
def cd(newdir):
    prevdir = os.getcwd()
    os.chdir(os.path.expanduser(newdir))
    try:
        yield
    finally:
        os.chdir(prevdir)


def _parse_xml(unparsed_xml, what):
    try:
        return ElementTree.fromstring(unparsed_xml)  # nosec B314
    except ElementTree.ParseError as e:
        raise InvalidMetadata("Failed to parse %s XML: %s" % (what, e)) from e


def parse_versions(unparsed_xml) -> List[str]:
    """Supported protocol versions from the ?comp=versions document."""
    root = _parse_xml(unparsed_xml, "Versions")
    return [
        v.text.strip() for v in root.findall("./Supported/Version") if v.text
    ]


class AzureEndpointHttpClient:
    headers = {
        "x-ms-agent-name": "WALinuxAgent",
        "x-ms-version": PROTOCOL_VERSION,
    }

    def __init__(self, provider):
        self.provider = provider

    def get(self, url, certificate=None) -> bytes:
        headers = self.headers
        if certificate is not None:
            headers = self.headers.copy()
            headers.update(
                {
                    "x-ms-cipher-name": "DES_EDE3_CBC",
                    "x-ms-guest-agent-public-x509-cert": certificate,
                }
            )
        return self.provider.readurl(url, headers=headers).contents


class GoalState:
    def __init__(self, unparsed_xml) -> None:
        """Parses a GoalState XML string.

        @raises InvalidMetadata: on unparsable XML or when the container id,
            instance id or incarnation is missing.
        """
        self.root = _parse_xml(unparsed_xml, "GoalState")

        self.container_id = self._text_from_xpath("./Container/ContainerId")
        self.instance_id = self._text_from_xpath(
            "./Container/RoleInstanceList/RoleInstance/InstanceId"
        )
        self.incarnation = self._text_from_xpath("./Incarnation")

        for attr in ("container_id", "instance_id", "incarnation"):
            if getattr(self, attr) is None:
                raise InvalidMetadata("Missing %s in GoalState XML" % attr)

        config = "./Container/RoleInstanceList/RoleInstance/Configuration/"
        self.certificates_url = self._text_from_xpath(config + "Certificates")
        self.shared_config_url = self._text_from_xpath(config + "SharedConfig")

    def _text_from_xpath(self, xpath):
        element = self.root.find(xpath)
        if element is not None and element.text:
            return element.text.strip()
        return None


class SharedConfig:
    """The load balancer view of the deployment.

    Each <Instance> carries its dynamic address, and its input endpoints
    the virtual (load balanced public) address.
    """

    def __init__(self, unparsed_xml, instance_id):
        root = _parse_xml(unparsed_xml, "SharedConfig")
        instances = root.findall("./Instances/Instance")
        instance = None
        for candidate in instances:
            if candidate.get("id") == instance_id:
                instance = candidate
                break
        if instance is None and len(instances) == 1:
            instance = instances[0]
        if instance is None:
            raise InvalidMetadata(
                "instance %s not found in SharedConfig XML" % instance_id
            )
        self.dynamic_ipv4 = instance.get("address")
        self.virtual_ipv4 = None
        for endpoint in instance.findall("./InputEndpoints/Endpoint"):
            public = endpoint.get("loadBalancedPublicAddress")
            if public:
                self.virtual_ipv4 = public.rsplit(":", 1)[0]
                break


class OpenSSLManager:
    """Transport certificate for the certificates exchange.

    Used as a context manager; the key pair only lives in a temporary
    directory for the duration of the block.
    """

    certificate_names = {
        "private_key": "TransportPrivate.pem",
        "certificate": "TransportCert.pem",
    }

    def __init__(self):
        self.tmpdir: Optional[str] = None
        self.certificate: Optional[str] = None

    def __enter__(self):
        self.tmpdir = temp_utils.mkdtemp()
        try:
            self.generate_certificate()
        except Exception:
            self.__exit__()
            raise
        return self

    def __exit__(self, *exc_info):
        util.del_dir(self.tmpdir)
        self.tmpdir = None

    def generate_certificate(self):
        LOG.debug("Generating certificate for communication with fabric...")
        with cd(self.tmpdir):
            subp.subp(
                [
                    "openssl",
                    "req",
                    "-x509",
                    "-nodes",
                    "-subj",
                    "/CN=LinuxTransport",
                    "-days",
                    "32768",
                    "-newkey",
                    "rsa:2048",
                    "-keyout",
                    self.certificate_names["private_key"],
                    "-out",
                    self.certificate_names["certificate"],
                ]
            )
            certificate = ""
            cert_file = self.certificate_names["certificate"]
            for line in util.load_text_file(cert_file).splitlines():
                if "CERTIFICATE" not in line:
                    certificate += line.rstrip()
            self.certificate = certificate
        LOG.debug("New certificate generated.")

    @staticmethod
    def _get_ssh_key_from_cert(certificate):
        pub_key, _ = subp.subp(
            ["openssl", "x509", "-noout", "-pubkey"], data=certificate
        )
        keygen_cmd = ["ssh-keygen", "-i", "-m", "PKCS8", "-f", "/dev/stdin"]
        ssh_key, _ = subp.subp(keygen_cmd, data=pub_key)
        return ssh_key.strip()

    def _decrypt_certs_from_xml(self, certificates_xml):
        """Decrypt the certificates XML document using our private key;
        return the certs and private keys contained in the doc.
        """
        tag = _parse_xml(certificates_xml, "Certificates").find(".//Data")
        if tag is None or not tag.text:
            raise InvalidMetadata("Certificates XML has no Data")
        lines = [
            b"MIME-Version: 1.0",
            b'Content-Disposition: attachment; filename="Certificates.p7m"',
            b'Content-Type: application/x-pkcs7-mime; name="Certificates.p7m"',
            b"Content-Transfer-Encoding: base64",
            b"",
            tag.text.strip().encode("utf-8"),
        ]
        with cd(self.tmpdir):
            out, _ = subp.subp(
                "openssl cms -decrypt -in /dev/stdin -inkey"
                " {private_key} -recip {certificate} | openssl pkcs12 -nodes"
                " -password pass:".format(**self.certificate_names),
                shell=True,
                data=b"\n".join(lines),
            )
        return out

    def parse_certificates(self, certificates_xml) -> List[str]:
        """Given the Certificates XML document, return the SSH keys derived
        from the certs, in document order."""
        out = self._decrypt_certs_from_xml(certificates_xml)
        current = []
        keys = []
        for line in out.splitlines():
            current.append(line)
            if re.match(r"[-]+END .*?KEY[-]+$", line):
                # ignore private_keys
                current = []
            elif re.match(r"[-]+END .*?CERTIFICATE[-]+$", line):
                certificate = "\n".join(current)
                keys.append(self._get_ssh_key_from_cert(certificate))
                current = []
        return keys
