"""Smali and manifest snippets shaped like apktool output."""

CLASS_HEADER = """.class public final Lcom/example/net/PinningTrustManager;
.super Ljava/lang/Object;
.source "PinningTrustManager.java"

# interfaces
.implements Ljavax/net/ssl/X509TrustManager;


# instance fields
.field private final pins:Ljava/util/Set;


# direct methods
.method public constructor <init>(Ljava/util/Set;)V
    .locals 0

    .line 18
    invoke-direct {p0}, Ljava/lang/Object;-><init>()V
    iput-object p1, p0, Lcom/example/net/PinningTrustManager;->pins:Ljava/util/Set;
    return-void
.end method
"""

CHECK_CLIENT_BODY = [
    '    .locals 2',
    '    .param p1, "chain"    # [Ljava/security/cert/X509Certificate;',
    '    .param p2, "authType"    # Ljava/lang/String;',
    '',
    '    .line 42',
    '    invoke-direct {p0, p1}, Lcom/example/net/PinningTrustManager;->verifyPins([Ljava/security/cert/X509Certificate;)Z',
    '    move-result v0',
    '    if-nez v0, :cond_0',
    '    new-instance v1, Ljava/security/cert/CertificateException;',
    '    invoke-direct {v1}, Ljava/security/cert/CertificateException;-><init>()V',
    '    throw v1',
    '    :cond_0',
]

CHECK_CLIENT = "\n".join([
    ".method public checkClientTrusted([Ljava/security/cert/X509Certificate;Ljava/lang/String;)V",
    *CHECK_CLIENT_BODY,
    ".end method",
]) + "\n"

CHECK_SERVER = """.method public final checkServerTrusted([Ljava/security/cert/X509Certificate;Ljava/lang/String;)V
    .locals 1

    invoke-direct {p0, p1}, Lcom/example/net/PinningTrustManager;->verifyPins([Ljava/security/cert/X509Certificate;)Z
    move-result v0
    if-nez v0, :cond_0
    new-instance v0, Ljava/security/cert/CertificateException;
    const-string p1, "Certificate pinning failure!"
    invoke-direct {v0, p1}, Ljava/security/cert/CertificateException;-><init>(Ljava/lang/String;)V
    throw v0

    :cond_0
    return-void
.end method
"""

GET_ACCEPTED_ISSUERS = """.method public getAcceptedIssuers()[Ljava/security/cert/X509Certificate;
    .locals 1

    iget-object v0, p0, Lcom/example/net/PinningTrustManager;->delegate:[Ljava/security/cert/X509Certificate;
    return-object v0
.end method
"""

VERIFY_PINS = """.method private verifyPins([Ljava/security/cert/X509Certificate;)Z
    .locals 1

    const/4 v0, 0x0
    return v0
.end method
"""

PLAIN_CLASS = """.class public Lcom/example/util/Strings;
.super Ljava/lang/Object;
.source "Strings.java"


# virtual methods
.method public checkServerTrusted([Ljava/security/cert/X509Certificate;Ljava/lang/String;)V
    .locals 0

    return-void
.end method
"""


def build_class(*methods: str) -> str:
    return CLASS_HEADER + "\n\n# virtual methods\n" + "\n".join(methods)


MANIFEST = """<?xml version="1.0" encoding="utf-8" standalone="no"?><manifest xmlns:android="http://schemas.android.com/apk/res/android" android:compileSdkVersion="33" package="com.example.app">
    <uses-permission android:name="android.permission.INTERNET"/>
    <application android:label="@string/app_name" android:name="com.example.app.App">
        <activity android:exported="true" android:name="com.example.app.MainActivity"/>
    </application>
</manifest>
"""
