# This file is part of coreos-metadata. See LICENSE for license information.
