"""Well-known JCR names, value types, and namespace URIs."""


class PROP:
    jcr_root = "jcr:root"
    jcr_primary_type = "jcr:primaryType"
    jcr_mixin_types = "jcr:mixinTypes"
    jcr_created = "jcr:created"
    jcr_created_by = "jcr:createdBy"
    jcr_last_modified = "jcr:lastModified"
    jcr_last_modified_by = "jcr:lastModifiedBy"
    cq_last_modified = "cq:lastModified"
    cq_last_modified_by = "cq:lastModifiedBy"
    cq_last_replicated = "cq:lastReplicated"
    cq_last_replicated_by = "cq:lastReplicatedBy"
    cq_last_replication_action = "cq:lastReplicationAction"
    sling_resource_type = "sling:resourceType"
    sling_resource_super_type = "sling:resourceSuperType"


class NODE_TYPE:
    nt_base = "nt:base"
    nt_file = "nt:file"
    nt_folder = "nt:folder"
    nt_unstructured = "nt:unstructured"
    sling_folder = "sling:Folder"


class VALUE_TYPE:
    string = "String"
    boolean = "Boolean"
    long = "Long"
    double = "Double"
    date = "Date"
    weak_reference = "WeakReference"


# Audit metadata maintained by the repository itself; never written back.
INTERNAL_PROPS: tuple[str, ...] = (
    PROP.jcr_created,
    PROP.jcr_created_by,
    PROP.jcr_last_modified,
    PROP.jcr_last_modified_by,
    PROP.cq_last_modified,
    PROP.cq_last_modified_by,
    PROP.cq_last_replicated,
    PROP.cq_last_replicated_by,
    PROP.cq_last_replication_action,
)

XMLNS: dict[str, str] = {
    "jcr": "http://www.jcp.org/jcr/1.0",
    "nt": "http://www.jcp.org/jcr/nt/1.0",
    "mix": "http://www.jcp.org/jcr/mix/1.0",
    "sling": "http://sling.apache.org/jcr/sling/1.0",
    "cq": "http://www.day.com/jcr/cq/1.0",
    "dam": "http://www.day.com/dam/1.0",
    "rep": "internal",
    "oak": "http://jackrabbit.apache.org/oak/ns/1.0",
    "granite": "http://www.adobe.com/jcr/granite/1.0",
    "vlt": "http://www.day.com/jcr/vault/1.0",
    "sv": "http://www.jcp.org/jcr/sv/1.0",
    "xmp": "http://ns.adobe.com/xap/1.0/",
    "dc": "http://purl.org/dc/elements/1.1/",
    "social": "http://www.adobe.com/social/1.0",
}

# Repository path of the JCR remoting (davex) servlet.
CRX_ROOT = "/crx/server/crx.default/jcr:root"
